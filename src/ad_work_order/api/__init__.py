"""
API 模块
"""
