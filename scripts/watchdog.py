from __future__ import annotations

from demeter_watchdog.workers.watchdog_worker import main


if __name__ == "__main__":
    # Boot the watchdog loop as a dedicated process, mirroring the console script.
    raise SystemExit(main())
