#!/usr/bin/env python3
"""
Main entry point for the Nearest Facility Finder API
"""

from facility_finder.app import app, settings

if __name__ == '__main__':
    if not settings.maps_configured:
        print("\n" + "="*50)
        print("SETUP REQUIRED:")
        print("="*50)
        print("1. Get a Google Maps API key from: https://console.cloud.google.com/")
        print("2. Enable the following APIs:")
        print("   - Places API")
        print("   - Directions API")
        print("   - Geocoding API")
        print("3. Set GOOGLE_MAPS_API_KEY in the .env file")
        print("4. Restart the app")
        print("="*50)
        print("API will start but search and routing are disabled without a valid key\n")
    app.run(debug=True, host='0.0.0.0', port=settings.port)
