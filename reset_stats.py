"""
Reset PoliFocus by clearing stored tasks and session history.
Settings and the task id counter are kept.
"""

from PoliFocus.core.paths import db_path
from PoliFocus.repos.storage_repo import StorageRepo

def reset_all_stats():
    """Clear tasks and sessions after a confirmation."""
    db_file = db_path()

    if not db_file.exists():
        print("No database found. Nothing to reset.")
        return

    print(f"Found database at: {db_file}")
    storage = StorageRepo(db_file)
    print(f"{len(storage.get_tasks())} tasks, {len(storage.get_sessions())} sessions stored.")

    # Ask for confirmation
    confirm = input("Are you sure you want to clear all tasks and sessions? This cannot be undone. (yes/no): ")

    if confirm.lower() in ['yes', 'y']:
        try:
            storage.clear_all()
            print("✓ Tasks and sessions cleared!")
            print("✓ Settings were kept")
        except Exception as e:
            print(f"✗ Error clearing data: {e}")
    else:
        print("Reset cancelled.")

if __name__ == "__main__":
    print("=" * 50)
    print("PoliFocus - Reset Stored Data")
    print("=" * 50)
    reset_all_stats()
    print("\nPress Enter to exit...")
    input()
