"""
ct_ev_scan — Extended Validation certificate scanner for CT logs.

Walks a public Certificate Transparency log, picks out certificates
issued under a known EV policy inside an optional NotBefore window,
and records each one as a CSV row, reporting the final count.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
