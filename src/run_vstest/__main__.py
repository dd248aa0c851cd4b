"""run-vstest 入口点。

支持: python -m run_vstest
"""

from .app import main

if __name__ == "__main__":
    main()
