"""Wallet domain - balances, statistics, transactions and withdrawals"""
