"""Command-line tools for operating the actPulse act cache.

- ``python -m src.cli clear-cache`` -- delete every cached act.
- ``python -m src.cli errors [--days N]`` -- list recent update errors.
- ``python -m src.cli refresh ID [ID ...]`` -- refresh acts immediately.
- ``python -m src.cli prune [--threshold N]`` -- evict unrequested acts.

Provider imports are deferred to the ``refresh`` handler; the other
commands only touch the store.
"""
