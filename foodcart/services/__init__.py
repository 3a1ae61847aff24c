"""
                        Services Module

Client-side business logic. Storage and payment each have a development
implementation and a real one, selected by a cached factory.

Services:
    - storage: key-value persistence (memory or file)
    - http: JSON API client
    - auth: session manager and refresh-retry client
    - cart: cart engine and ordered persistence
    - orders: order endpoints
    - payment: VNPay gateway (mock or real)
    - checkout: order placement orchestration
"""
