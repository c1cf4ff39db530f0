"""
                Restaurant Ordering Backend

Cart checkout, payment gateway notification reconciliation and
transactional payment emails, with a hybrid Mock/Real service architecture.

Author: Khalil_Bannouri
Version: 4.0.0
License: MIT
"""

__version__ = "4.0.0"
__author__ = "Khalil_Bannouri"
