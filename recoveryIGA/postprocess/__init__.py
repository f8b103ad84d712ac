"""
Post-processing module: sampling and error norms of recovered fields.
"""

from .sampling import sample_field_2d, compute_l2_error
