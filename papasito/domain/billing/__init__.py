"""Subscription domain - plans, subscriptions and the Stripe integration"""
