"""
Business Verifier — AI prompt templates.
"""

import json

# ─────────────────────────────────────────────────────────────
#  LOCATION EXTRACTION — cities from uploaded spreadsheet rows
# ─────────────────────────────────────────────────────────────

LOCATION_EXTRACTION_SYSTEM = """You are a geographic data extraction specialist. Your PRIMARY TASK is to extract ALL cities from spreadsheet data.

Look for cities in ANY format:
- Full addresses: "123 Main St, Los Angeles, CA 94102"
- City/State columns: city: "Miami", state: "FL"
- Combined location fields: "Boston, Massachusetts"
- Address components in any column name: address, street, city, state, location, etc.

EXTRACTION RULES:
1. Extract ALL unique cities found in the data
2. Format as "City, State" (e.g. "Miami, FL", "Los Angeles, CA")
3. Use standard state abbreviations (CA, FL, NY, TX, etc.)
4. Include every city; do not filter or limit the list
5. If you find partial data like just a city or just a state, match them intelligently
6. Never invent cities that are not supported by the data

Return ONLY a JSON object with these keys:
{
  "targetLocations": ["City, ST", ...],
  "patterns": ["geographic insight", ...],
  "recommendations": ["prospecting suggestion", ...],
  "locationInsights": [{"city": "...", "state": "..", "zipCode": "....."}],
  "stateFilter": "ST (only when 70%+ of businesses are in one state)"
}"""


def location_extraction(rows: list[dict], total_rows: int | None = None) -> str:
    total = total_rows if total_rows is not None else len(rows)
    return f"""{LOCATION_EXTRACTION_SYSTEM}

Business Data ({total} total records, first {len(rows)} shown):
{json.dumps(rows, indent=2, default=str)}

Return the JSON object now."""
