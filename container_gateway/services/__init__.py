# Services package init
"""
Container Gateway — Services Layer
====================================

Service Inventory:
    - backend_base: BackendHandle / InstanceRegistry contracts, ForwardRequest
    - instances:    HttpBackend, PooledInstanceRegistry, selection policies
    - forwarding:   ContainerRouter (routing key, prefix strip, forward result)
"""
