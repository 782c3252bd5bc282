import os
import sys

import requests


class BatteryApiSmokeTester:
    def __init__(self, base_url=None):
        self.base_url = (base_url or os.environ.get("BACKEND_URL", "http://localhost:8001")).rstrip("/")
        self.tests_run = 0
        self.tests_passed = 0
        self.failed_tests = []
        self.material_id = None

    def run_test(self, name, test_func):
        """Run a single test"""
        self.tests_run += 1
        print(f"\n🔍 {self.tests_run}. Testing {name}...")

        try:
            result = test_func()
            if result:
                self.tests_passed += 1
                print(f"✅ PASS - {name}")
                return True
            else:
                print(f"❌ FAIL - {name}")
                self.failed_tests.append(name)
                return False
        except Exception as e:
            print(f"❌ ERROR - {name}: {str(e)}")
            self.failed_tests.append(f"{name} (Exception: {str(e)})")
            return False

    def test_health(self):
        response = requests.get(f"{self.base_url}/api/health")
        if response.status_code != 200:
            print(f"Health check failed: {response.status_code}")
            return False
        return response.json().get("status") == "healthy"

    def test_create_material(self):
        payload = {
            "name": "Smoke Test LiCoO2",
            "format": "CIF",
            "rawData": "data_LiCoO2\n_cell_length_a 2.8156\n",
            "formula": "LiCoO2",
        }
        response = requests.post(f"{self.base_url}/api/materials", json=payload)
        if response.status_code != 201:
            print(f"Create failed: {response.status_code} - {response.text}")
            return False
        self.material_id = response.json()["id"]
        print(f"Created material {self.material_id}")
        return True

    def test_predict(self):
        if not self.material_id:
            print("No material to predict")
            return False

        response = requests.post(f"{self.base_url}/api/predict", json={"materialId": self.material_id})
        if response.status_code != 200:
            print(f"Prediction failed: {response.status_code} - {response.text}")
            return False

        result = response.json()
        for prop in ("energyDensity", "voltageWindow", "ionicConductivity", "thermalStability", "cycleLife"):
            value = result.get(prop)
            err = result.get("uncertainty", {}).get(prop)
            if value is None or err is None or err < 0 or err > 0.15 * value:
                print(f"Bad {prop}: value={value}, uncertainty={err}")
                return False
        return True

    def test_prediction_history(self):
        if not self.material_id:
            return False
        response = requests.get(f"{self.base_url}/api/predictions/{self.material_id}")
        if response.status_code != 200:
            return False
        history = response.json()
        print(f"Found {len(history)} stored predictions")
        return len(history) == 1

    def test_generate_sorted(self):
        response = requests.post(f"{self.base_url}/api/generate", json={"count": 5, "targetVoltage": 3.8})
        if response.status_code != 200:
            print(f"Generation failed: {response.status_code} - {response.text}")
            return False

        candidates = response.json().get("candidates", [])
        scores = [c["score"] for c in candidates]
        print(f"Scores: {[round(s, 3) for s in scores]}")
        return len(candidates) == 5 and scores == sorted(scores, reverse=True)

    def test_generate_rejects_large_count(self):
        response = requests.post(f"{self.base_url}/api/generate", json={"count": 51})
        return response.status_code == 400

    def test_dataset_search(self):
        response = requests.get(f"{self.base_url}/api/dataset", params={"search": "LiFePO4"})
        if response.status_code != 200:
            return False
        entries = response.json().get("entries", [])
        if len(entries) != 1:
            print(f"Expected one LiFePO4 entry, got {len(entries)}")
            return False
        entry = entries[0]
        return entry["materialId"] == "mp-19017" and entry["energyDensity"] == 170

    def test_delete_twice(self):
        if not self.material_id:
            return False
        first = requests.delete(f"{self.base_url}/api/materials/{self.material_id}")
        second = requests.delete(f"{self.base_url}/api/materials/{self.material_id}")
        print(f"Delete status codes: {first.status_code}, {second.status_code}")
        return first.status_code == 204 and second.status_code == 404

    def run_all_tests(self):
        """Run all tests"""
        print("🚀 Starting Battery Explorer API Smoke Tests")
        print(f"Testing against: {self.base_url}")
        print("=" * 60)

        self.run_test("Backend: Health check", self.test_health)
        self.run_test("Backend: Create material", self.test_create_material)
        self.run_test("Backend: Prediction has bounded uncertainties", self.test_predict)
        self.run_test("Backend: Prediction is stored once", self.test_prediction_history)
        self.run_test("Backend: Candidates sorted by score", self.test_generate_sorted)
        self.run_test("Backend: count=51 is rejected", self.test_generate_rejects_large_count)
        self.run_test("Backend: Dataset search finds LiFePO4", self.test_dataset_search)
        self.run_test("Backend: Second delete returns 404", self.test_delete_twice)

        # Print results
        print("\n" + "=" * 60)
        print(f"📊 Test Results: {self.tests_passed}/{self.tests_run} passed")
        print(f"Success Rate: {(self.tests_passed/self.tests_run)*100:.1f}%")

        if self.failed_tests:
            print(f"\n❌ Failed Tests ({len(self.failed_tests)}):")
            for test in self.failed_tests:
                print(f"  • {test}")

        return self.tests_passed == self.tests_run

def main():
    tester = BatteryApiSmokeTester()
    success = tester.run_all_tests()
    return 0 if success else 1

if __name__ == "__main__":
    sys.exit(main())
