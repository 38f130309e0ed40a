"""Device agent launcher package.

Run with: python -m apps.agent.main
"""
