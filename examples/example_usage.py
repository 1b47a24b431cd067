"""Example: drive the service layer directly (no Flask).

Controllers stay thin; this runs a bidirectional sync for one tenant and prints the summary.
"""

import importlib

from config import get_settings_module

from src.timesheet_sync.timesheet_sync.container import build_container


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG)
    result = container.sync_service.synchronize("tenant-demo", "bidirectional", "2024-03-04", "2024-03-08", "example")
    print(result.status.value, result.records_created, result.records_updated, len(result.conflicts))
    container.runner.shutdown()


if __name__ == "__main__":
    main()
