# Supabase table: customer_deployments
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in store.py

"""
Expected Supabase table structure:
- id: bigint (primary key, identity)
- customer_id: bigint (not null, unique) - owning customer
- platform_project_id: text (nullable) - Cloudflare Pages project id, set on initialize
- platform_project_name: text (nullable)
- production_url: text (nullable) - https://{project}.pages.dev or last deployment URL
- source_repo_url: text (nullable)
- source_branch: text (not null, default: 'main')
- custom_domain: text (nullable)
- deployment_status: text (not null, default: 'NOT_DEPLOYED') - values: NOT_DEPLOYED, DEPLOYING, DEPLOYED, FAILED
- domain_status: text (not null, default: 'NONE') - values: NONE, DNS_PENDING, DNS_CONFIGURED, ACTIVE, ERROR
- last_deployment_id: text (nullable)
- last_deployment_at: timestamp (nullable)
- last_deployment_error: text (nullable) - only set while deployment_status = FAILED
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

Indexes:
- unique (customer_id)
- (deployment_status) - used by the in-flight reconciliation sweep
"""
