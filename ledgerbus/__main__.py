"""Allow running a node event runtime as a module: python -m ledgerbus."""

from ledgerbus.runner import main

if __name__ == "__main__":
    main()
