"""
业务域
"""
