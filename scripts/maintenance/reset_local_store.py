"""
Reset the local store.

DANGEROUS: This deletes all local settings, archived lessons and review
progress of the anonymous user! Remote (signed-in) data is not touched.

Usage:
    python -m scripts.maintenance.reset_local_store
"""

from core.storage.local_store import SqlLocalStore


def main():
    store = SqlLocalStore()

    print("=" * 60)
    print("WARNING: Reset Local Store")
    print("=" * 60)
    print()
    print(f"Store: {store.url}")
    print("This will DELETE:")
    print("  - Local settings (API keys, model selection)")
    print("  - Archived lessons")
    print("  - All review items and their progress")
    print()

    response = input("Are you sure you want to reset? (type 'yes' to confirm): ")

    if response.lower() == "yes":
        print("\nResetting local store...")
        store.clear()
        print("✓ Local store reset complete!")
    else:
        print("\nCancelled. No changes made.")


if __name__ == "__main__":
    main()
