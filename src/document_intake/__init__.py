"""Document Intake Package.

Document ingestion for the business administration portal. Scanned
invoices, timesheets and forms are uploaded to S3, analysed with Amazon
Textract, routed for human review on low confidence and persisted to
DynamoDB.
"""

__version__ = "1.0.0"
