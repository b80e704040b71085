"""
Admissions Kernel

Payment reconciliation core for an education-consultancy admissions business:
- Flow classification of Student / College / Consultancy / Agent transactions
- Service-charge and college-due derivation
- Per-branch cashbook with running balance
- Serialized voucher and admission numbering
- Admission summaries recomputed from the full payment history
"""

__version__ = "0.1.0"
