"""
广告账户工单后台
"""

__version__ = "1.0.0"
