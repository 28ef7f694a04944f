# ==============================================
# SCHEDULING
# ==============================================
#
# Deferred, coalesced execution of save requests.
#
# Modules:
# --------
# - coalescing_queue.py  → One timer per key; many add() calls, one run
#
# ==============================================

from .coalescing_queue import CoalescingQueue

__all__ = ["CoalescingQueue"]
