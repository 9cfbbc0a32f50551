"""
Fixed illustrative dataset for the "Example" button.

Field names are deliberately non-uniform (no field is literally "date" or "sales")
so the dashboard exercises column inference instead of a hardcoded schema.
"""

import copy
from typing import List

from .schemas import Record

EXAMPLE_RECORDS: List[Record] = [
    {"Transaction_Date": "2024-01-15", "Product_Line": "Electronics", "Sales_Channel": "Online", "Units_Moved": 120, "Gross_Revenue": 4820.5},
    {"Transaction_Date": "2024-02-03", "Product_Line": "Apparel", "Sales_Channel": "Retail", "Units_Moved": 310, "Gross_Revenue": 2975.0},
    {"Transaction_Date": "2024-02-21", "Product_Line": "Home Goods", "Sales_Channel": "Online", "Units_Moved": 85, "Gross_Revenue": 1640.25},
    {"Transaction_Date": "2024-03-09", "Product_Line": "Electronics", "Sales_Channel": "Wholesale", "Units_Moved": 240, "Gross_Revenue": 4390.0},
    {"Transaction_Date": "2024-03-28", "Product_Line": "Apparel", "Sales_Channel": "Online", "Units_Moved": 415, "Gross_Revenue": 3310.75},
    {"Transaction_Date": "2024-04-12", "Product_Line": "Home Goods", "Sales_Channel": "Retail", "Units_Moved": 60, "Gross_Revenue": 1105.0},
    {"Transaction_Date": "2024-05-02", "Product_Line": "Electronics", "Sales_Channel": "Retail", "Units_Moved": 198, "Gross_Revenue": 3987.4},
    {"Transaction_Date": "2024-05-24", "Product_Line": "Apparel", "Sales_Channel": "Wholesale", "Units_Moved": 472, "Gross_Revenue": 2540.0},
    {"Transaction_Date": "2024-06-14", "Product_Line": "Home Goods", "Sales_Channel": "Online", "Units_Moved": 133, "Gross_Revenue": 2210.9},
    {"Transaction_Date": "2024-07-06", "Product_Line": "Electronics", "Sales_Channel": "Online", "Units_Moved": 260, "Gross_Revenue": 4975.0},
    {"Transaction_Date": "2024-08-19", "Product_Line": "Apparel", "Sales_Channel": "Retail", "Units_Moved": 288, "Gross_Revenue": 2730.3},
    {"Transaction_Date": "2024-09-07", "Product_Line": "Home Goods", "Sales_Channel": "Wholesale", "Units_Moved": 97, "Gross_Revenue": 1488.0},
    {"Transaction_Date": "2024-10-22", "Product_Line": "Electronics", "Sales_Channel": "Wholesale", "Units_Moved": 305, "Gross_Revenue": 4612.8},
    {"Transaction_Date": "2024-11-15", "Product_Line": "Apparel", "Sales_Channel": "Online", "Units_Moved": 356, "Gross_Revenue": 3125.6},
    {"Transaction_Date": "2024-12-10", "Product_Line": "Home Goods", "Sales_Channel": "Retail", "Units_Moved": 142, "Gross_Revenue": 2380.0},
]


def example_records() -> List[Record]:
    """Fresh copy of the example set; callers may mutate it freely."""
    return copy.deepcopy(EXAMPLE_RECORDS)
