# 依赖注入配置，见 dependency_injection.py
