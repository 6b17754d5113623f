import os

from semantic_notes.config import Settings


def clear_cache(db_path: str):
    # SQLite may leave journal files next to the database
    paths = [db_path, db_path + "-journal", db_path + "-wal", db_path + "-shm"]
    existing = [p for p in paths if os.path.exists(p)]

    if not existing:
        print("No note database found to clear.")
        return

    for path in existing:
        print(f"Removing {os.path.abspath(path)}...")
        try:
            os.remove(path)
        except OSError as e:
            print(f"Error removing {path}: {e}")
    print("Note database cleared.")


if __name__ == "__main__":
    settings = Settings.from_env()
    confirm = input(f"This will delete every note in {settings.db_path}. Are you sure? (y/n): ")
    if confirm.lower() == 'y':
        clear_cache(settings.db_path)
    else:
        print("Operation cancelled.")
