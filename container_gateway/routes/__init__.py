# Routes package init
"""
Container Gateway — Routes Package
====================================

Route Inventory:
    - container.py: ANY <prefix>, <prefix>/{path}   (edge → session-affine instance)
    - assets.py:    ANY /{path}                     (edge → static asset origin)
    - dispatch.py:  ANY /{path}                     (internal, policy per path)
    - health.py:    GET /_gateway/health            (gateway health check)
    - worker.py:    /health, /process-image, /generate-pdf, /heavy-computation
                    (placeholder container application)

Routes stay thin: they pick a resolver, call the router, and shape errors.
"""
