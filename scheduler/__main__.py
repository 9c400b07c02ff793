"""
Scheduler 진입점

실행 방법:
    python -m scheduler
"""

import asyncio

from scheduler.bootstrap import main

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
