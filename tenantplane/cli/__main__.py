"""Entry point for `python -m tenantplane.cli` and the `tenantplane` console script."""

from tenantplane.cli.app import main

if __name__ == "__main__":
    main()
