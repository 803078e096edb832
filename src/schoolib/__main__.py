"""Main entry point for the schoolib package."""

from schoolib.circulation.cli import main


if __name__ == "__main__":
    main()
