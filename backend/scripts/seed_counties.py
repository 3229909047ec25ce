"""
Seed script for scraper platforms and the Maricopa County configuration.

Run with: python -m scripts.seed_counties
"""
import asyncio
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lien_sync.database import close_db, init_db
from lien_sync.scraping.config import merge_configs
from lien_sync.storage import get_storage


# Platform defaults are stored with the camelCase keys the dashboard edits
PLATFORMS = [
    {
        "id": "maricopa-legacy",
        "name": "Legacy Recorder",
        "description": "ASP.NET legacy recorder sites with iframe results and a Pages column PDF link",
        "default_config": {
            "scrapeType": "playwright",
            "dateFormat": "MM/DD/YYYY",
            "defaultDocumentType": "HL",
            "requiresIframe": True,
            "selectors": {
                "searchFormIframe": "GetRecDataRecInt",
                "resultsIframe": "GetRecDataRecentPgDn",
                "documentTypeDropdown": "#ctl00_ContentPlaceHolder1_ddlDocCodes",
                "startDateField": "#ctl00_ContentPlaceHolder1_datepicker_dateInput",
                "endDateField": "#ctl00_ContentPlaceHolder1_datepickerEnd_dateInput",
                "searchButton": "#ctl00_ContentPlaceHolder1_btnSearchPanel1",
            },
            "parsing": {
                "recordingNumberPattern": r"^\d{10,12}$",
                "amountPattern": r"\$([\d,]+(?:\.\d{2})?)",
            },
            "delays": {
                "pageLoadWait": 3000,
                "betweenRequests": 300,
                "afterFormSubmit": 3000,
                "pdfLoadWait": 2000,
            },
            "rateLimit": {
                "maxRequestsPerMinute": 60,
                "maxPagesPerRun": 10,
            },
        },
    },
    {
        "id": "landmark-web",
        "name": "LandmarkWeb",
        "description": "Tyler Technologies LandmarkWeb document search",
        "default_config": {
            "scrapeType": "playwright",
            "dateFormat": "MM/DD/YYYY",
            "defaultDocumentType": "PPHL",
            "requiresDisclaimer": True,
            "selectors": {
                "documentTypeInput": "#documentType-DocumentType",
                "startDateField": "#beginDate-DocumentType",
                "endDateField": "#endDate-DocumentType",
                "searchButton": "#submit-DocumentType",
                "resultsTable": ".search-results",
                "recordingNumberLinks": "a[href*='instrument']",
            },
            "parsing": {
                "recordingNumberPattern": r"^\d+$",
            },
            "delays": {
                "pageLoadWait": 3000,
                "betweenRequests": 500,
                "afterFormSubmit": 3000,
                "pdfLoadWait": 2000,
            },
        },
    },
]

COUNTIES = [
    {
        "name": "Maricopa",
        "state": "AZ",
        "scraper_platform_id": "maricopa-legacy",
        "is_active": True,
        "airtable_county_id": os.getenv("MARICOPA_AIRTABLE_COUNTY_ID"),
        "config": {
            "baseUrl": "https://legacy.recorder.maricopa.gov",
            "searchFormUrl": "https://legacy.recorder.maricopa.gov/recdocdata/GetRecDataRec.aspx",
            "documentDetailUrlPattern": (
                "https://legacy.recorder.maricopa.gov/recdocdata/GetRecDataDetail.aspx"
                "?rec={recordingNumber}&suf=&nm="
            ),
            "pdfUrlPatterns": [
                "https://legacy.recorder.maricopa.gov/UnOfficialDocs/pdf/{recordingNumber}.pdf",
            ],
            "documentTypes": [
                {"code": "HL", "name": "Hospital Lien", "description": "Medical lien filed by a hospital"},
            ],
        },
    },
]


async def seed_counties():
    """Seed the database with scraper platforms and counties"""
    await init_db()
    storage = get_storage()

    try:
        print("Seeding scraper platforms...")
        for platform_data in PLATFORMS:
            if await storage.get_platform(platform_data["id"]):
                print(f"  Exists:  {platform_data['name']} ({platform_data['id']})")
                continue
            await storage.create_platform(**platform_data)
            print(f"  Created: {platform_data['name']} ({platform_data['id']})")

        print("Seeding counties...")
        existing = {(county.name, county.state) for county in await storage.get_active_counties()}
        platform_defaults = {platform["id"]: platform["default_config"] for platform in PLATFORMS}
        for county_data in COUNTIES:
            # Fail here rather than mid-scrape if the merged config is malformed
            merge_configs(platform_defaults.get(county_data["scraper_platform_id"]), county_data["config"])

            if (county_data["name"], county_data["state"]) in existing:
                print(f"  Exists:  {county_data['name']} County, {county_data['state']}")
                continue
            await storage.create_county(**county_data)
            print(f"  Created: {county_data['name']} County, {county_data['state']}")

        active = await storage.get_active_counties()
        print(f"\nSeeding complete!")
        print(f"  Active counties: {len(active)}")
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(seed_counties())
