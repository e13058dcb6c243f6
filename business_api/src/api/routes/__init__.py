"""
API route modules.

- Auth: login and current user
- Users: user administration and reporting lines (evicts cached teams)
- Access: role-module permissions, team cache maintenance, own visibility
- Home, Inquiries, Orders, Marketing, Delivery: business modules whose list and
  detail endpoints are scoped by the caller's listing criteria and team

Routers are included from src.api.main (under the /api/v1 prefix).
"""
