from __future__ import annotations

from Detection_Server.server import main


if __name__ == "__main__":
    raise SystemExit(main())
