"""Allow ``python -m sysco_scrape``."""

from sysco_scrape.cli import main

if __name__ == "__main__":
    main()
