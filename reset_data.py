"""
reset_data.py
-------------
Utility script to clear all stored data (catalog, fleet, discount codes, bookings)
from the local data.pkl file.

This script is designed for development and testing purposes.

Usage:
    $ python reset_data.py

After running this script, you can repopulate sample data by executing:
    $ python seeds.py
"""

from rentalcore.models.store import Store


def main():
    """Empty every table of the singleton Store and save it back to `data.pkl`."""
    store = Store.instance()
    store.clear()
    store.save()

    print("data.pkl has been successfully cleared.")
    print("Tip: Run `python seeds.py` to regenerate demo data.")


if __name__ == "__main__":
    main()
