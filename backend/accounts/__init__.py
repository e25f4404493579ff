# accounts/__init__.py
"""
Accounts app - Authentication and multi-tenancy for PropLedger.

This app provides:
- Company: the property-management business (SaaS tenant)
- User: Custom user model with active_company
- CompanyMembership: User-Company relationship with a role
- MembershipPermission: Explicit permission grants
- ActorContext: Authorization context utilities

Every command, query and report receives an ActorContext and is scoped to
the actor's company.
"""
