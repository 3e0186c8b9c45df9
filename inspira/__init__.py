"""
Inspira: the session flow behind the "enter your link" landing page.

A visitor lands, submits a link, signs in (or keeps the anonymous session
the app starts with), reads the tutorial and applies to become a tester.
Tester applications are kept in a shared document store; a hidden admin
panel on the tutorial page exports them as a CSV file.
"""

__all__ = [
    "FlowMachine",
    "IdentitySession",
    "EnrollmentStore",
    "ReportGenerator",
]

from .app.services.enrollment import EnrollmentStore
from .app.services.flow import FlowMachine
from .app.services.identity import IdentitySession
from .app.services.report import ReportGenerator

__version__ = "0.1.0"
