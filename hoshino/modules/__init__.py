"""
Hoshino 基础模块层

日志、事件、配置、存储、LLM 等可复用基础设施。
"""
