"""Test suite for the catalog intake form lifecycle.

Covers field validation, form state and line items, completion tracking,
draft persistence, the submission status machine and pipeline, and the
form session that ties them together.
"""
