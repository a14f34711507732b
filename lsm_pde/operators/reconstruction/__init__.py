"""
High-order reconstruction strategies for upwind derivatives.

    - eno: HJ ENO2 and HJ ENO3 (adaptive stencil choice)
    - weno: HJ WENO5 (weighted combination of ENO3 candidates)
"""

from lsm_pde.operators.reconstruction.eno import hj_eno2, hj_eno3, undivided_differences
from lsm_pde.operators.reconstruction.weno import hj_weno5, weno5_combination

__all__ = [
    "hj_eno2",
    "hj_eno3",
    "hj_weno5",
    "undivided_differences",
    "weno5_combination",
]
