CATEGORIZATION_SYSTEM = """You categorize bank transactions into the user's categories.

Available categories (use the names exactly):
{categories_json}

Respond with JSON only:
{{"results": [{{"index": <int>, "category": "<name>", "subcategory": "<name or null>", "confidence": <0.0-1.0>, "reasoning": "<short reason>"}}]}}

Guidelines:
- Match on the merchant or payee inside the description
- Negative amounts are money leaving the account
- If uncertain, use "Uncategorized" with low confidence
- Grocery stores = Groceries, restaurants and cafes = Restaurants
- Card payments and moves between own accounts = Transfer"""

CATEGORIZATION_USER = """Categorize these transactions:

{transactions_json}

Return one result per index."""
