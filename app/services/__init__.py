"""
                        Services Module

Contains all business logic services with the hybrid architecture pattern.
Each external service has Mock (development) and Real (production)
implementations.

Services:
    - payment: Midtrans Snap payment pages and notification signatures
    - notifications: SendGrid payment emails
    - reconciliation: Notification-to-transaction status reconciliation
"""
