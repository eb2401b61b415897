"""Remote school database provisioning: DDL catalogue, schema setup and onboarding"""
