#!/usr/bin/env python3
"""
Seed the forms database with sample form definitions.

Usage:
    python -m formadmin.seed
    python -m formadmin.seed --keep                      # don't clear existing definitions
    python -m formadmin.seed --mongo-uri "mongodb://..." --db-name "mydb"
"""
import argparse
import logging
import os
import sys
from datetime import datetime

from dotenv import load_dotenv
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from formadmin.logging_config import configure_logging

logger = logging.getLogger(__name__)

SAMPLE_FORM_DEFINITIONS = [
    {
        "formId": "user-registration",
        "name": "User registration",
        "description": "Collects the details of a new user",
        "schema": {
            "type": "object",
            "properties": {
                "username": {
                    "name": "username",
                    "type": "Input",
                    "title": "Username",
                    "required": True,
                    "x-component-props": {"placeholder": "Enter a username"},
                },
                "email": {
                    "name": "email",
                    "type": "Input",
                    "title": "Email",
                    "required": True,
                    "x-component-props": {"placeholder": "Enter an email address"},
                    "x-validator": "email",
                },
                "phone": {
                    "name": "phone",
                    "type": "Input",
                    "title": "Phone",
                    "required": True,
                    "x-component-props": {"placeholder": "Enter a phone number"},
                },
                "gender": {
                    "name": "gender",
                    "type": "Radio",
                    "title": "Gender",
                    "enum": [
                        {"label": "Male", "value": "male"},
                        {"label": "Female", "value": "female"},
                    ],
                },
                "birthday": {
                    "name": "birthday",
                    "type": "DatePicker",
                    "title": "Birthday",
                    "x-component-props": {"placeholder": "Pick a date"},
                },
                "interests": {
                    "name": "interests",
                    "type": "Checkbox",
                    "title": "Interests",
                    "enum": [
                        {"label": "Reading", "value": "reading"},
                        {"label": "Sports", "value": "sports"},
                        {"label": "Music", "value": "music"},
                        {"label": "Travel", "value": "travel"},
                    ],
                },
                "bio": {
                    "name": "bio",
                    "type": "TextArea",
                    "title": "About you",
                    "x-component-props": {"placeholder": "A few words about yourself", "rows": 4},
                },
            },
        },
    },
    {
        "formId": "feedback-form",
        "name": "Feedback",
        "description": "Collects user feedback",
        "schema": {
            "type": "object",
            "properties": {
                "title": {
                    "name": "title",
                    "type": "Input",
                    "title": "Subject",
                    "required": True,
                },
                "category": {
                    "name": "category",
                    "type": "Select",
                    "title": "Category",
                    "required": True,
                    "enum": [
                        {"label": "Feature request", "value": "feature"},
                        {"label": "Bug report", "value": "bug"},
                        {"label": "Usage question", "value": "usage"},
                        {"label": "Other", "value": "other"},
                    ],
                },
                "priority": {
                    "name": "priority",
                    "type": "Radio",
                    "title": "Priority",
                    "enum": [
                        {"label": "Low", "value": "low"},
                        {"label": "Medium", "value": "medium"},
                        {"label": "High", "value": "high"},
                    ],
                    "default": "medium",
                },
                "description": {
                    "name": "description",
                    "type": "TextArea",
                    "title": "Details",
                    "required": True,
                    "x-component-props": {"rows": 6},
                },
                "rating": {
                    "name": "rating",
                    "type": "Rate",
                    "title": "Satisfaction",
                    "x-component-props": {"allowHalf": True},
                },
                "contact": {
                    "name": "contact",
                    "type": "Input",
                    "title": "Contact (optional)",
                },
            },
        },
    },
    {
        "formId": "survey-form",
        "name": "Satisfaction survey",
        "description": "Product satisfaction questionnaire",
        "schema": {
            "type": "object",
            "properties": {
                "q1": {
                    "name": "q1",
                    "type": "Radio",
                    "title": "How satisfied are you with the product overall?",
                    "required": True,
                    "enum": [
                        {"label": "Very satisfied", "value": 5},
                        {"label": "Satisfied", "value": 4},
                        {"label": "Neutral", "value": 3},
                        {"label": "Unsatisfied", "value": 2},
                        {"label": "Very unsatisfied", "value": 1},
                    ],
                },
                "q2": {
                    "name": "q2",
                    "type": "Checkbox",
                    "title": "Which features do you use most?",
                    "enum": [
                        {"label": "Form design", "value": "form-design"},
                        {"label": "Data management", "value": "data-management"},
                        {"label": "Analytics", "value": "analytics"},
                        {"label": "User management", "value": "user-management"},
                    ],
                },
                "q3": {
                    "name": "q3",
                    "type": "Slider",
                    "title": "How easy is the product to use? (1-10)",
                    "x-component-props": {"min": 1, "max": 10},
                },
                "q4": {
                    "name": "q4",
                    "type": "TextArea",
                    "title": "Which features should we add?",
                    "x-component-props": {"rows": 4},
                },
                "recommend": {
                    "name": "recommend",
                    "type": "Switch",
                    "title": "Would you recommend us to a friend?",
                },
            },
        },
    },
]


def build_documents(created_by="system"):
    now = datetime.utcnow()
    return [
        {
            **definition,
            "version": 1,
            "status": "published",
            "createdBy": created_by,
            "createdAt": now,
            "updatedAt": now,
        }
        for definition in SAMPLE_FORM_DEFINITIONS
    ]


def seed_form_definitions(db, keep_existing=False):
    """Insert the samples into `db.form_definitions`; returns the number inserted."""
    collection = db["form_definitions"]
    if not keep_existing:
        result = collection.delete_many({})
        logger.info(f"Cleared {result.deleted_count} existing form definitions")

    inserted = 0
    for doc in build_documents():
        if keep_existing and collection.find_one({"formId": doc["formId"]}):
            logger.info(f"Skipping {doc['formId']}: already present")
            continue
        collection.insert_one(doc)
        inserted += 1
        logger.info(f"Created form definition: {doc['name']}")
    return inserted


def main(argv=None):
    load_dotenv()
    parser = argparse.ArgumentParser(description="Seed sample form definitions")
    parser.add_argument("--mongo-uri", default=os.getenv("MONGO_URI", "mongodb://localhost:27017"))
    parser.add_argument("--db-name", default=os.getenv("DB_NAME", "formily_admin"))
    parser.add_argument("--keep", action="store_true", help="Keep existing definitions")
    args = parser.parse_args(argv)

    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    client = MongoClient(args.mongo_uri, serverSelectionTimeoutMS=5000)
    try:
        count = seed_form_definitions(client[args.db_name], keep_existing=args.keep)
        logger.info(f"Database initialization completed, {count} definitions inserted")
    except PyMongoError as e:
        logger.error(f"Database initialization failed: {e}")
        return 1
    finally:
        client.close()
        logger.info("Database connection closed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
