"""
ezla: backend сервиса e-zwolnienie (telemedyczne zwolnienia lekarskie e-ZLA).
"""

__version__ = "1.4.0"
