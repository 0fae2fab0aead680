"""
Finyvo Auth - Source Package

Authentication and session orchestration for the Finyvo personal
finance app: the session store, the deep-link callback parser, the
auth service facade over the hosted identity backend, the per-screen
auth flows and the navigation guard that decides which screen a user
may see.

DESIGN PRINCIPLES:
1. One writer path for session state
2. A recovery session never leaks into the authenticated area
3. Every callback link is exchanged at most once
4. Users never see raw backend error text
5. The identity backend is swappable
"""

__version__ = "1.0.0"
__author__ = "Finyvo Team"
