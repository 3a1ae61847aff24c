"""
                FoodCart Client Core

Client-side cart, checkout and session engine for a food delivery
application, with hybrid Mock/Real payment gateway support.

Author: Khalil_Bannouri
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Khalil_Bannouri"
