"""Allow ``python -m fogbugz_mcp``."""

from fogbugz_mcp.cli import main

if __name__ == "__main__":
    main()
