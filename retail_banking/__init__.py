"""
Retail Banking Integration Backend

Customer accounts (demand deposit, savings, loans, investments) and the
intra-group integration API that lets sibling services resolve a customer
from a group customer token.
"""

__version__ = "1.0.0"
