"""
SmallEarns - Local Data Store

The data layer of a small-business bookkeeping tool (clients,
appointments, income, expenses, mileage, invoices) that keeps everything
on the local device.

DESIGN PRINCIPLES:
1. A bad record never takes a collection down with it
2. Nothing is thrown away silently: dropped data is quarantined and audited
3. Newer data is never overwritten by an older build
4. One occurrence of a recurring rule books at most one appointment
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "SmallEarns Team"
