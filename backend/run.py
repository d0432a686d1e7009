import os

from flickpick import create_app
from flickpick.utils.device import get_device_id

app = create_app(os.getenv("FLASK_ENV"))


if __name__ == "__main__":
    app.logger.info("Registered routes:")
    for rule in app.url_map.iter_rules():
        app.logger.info("%s -> endpoint=%s methods=%s", rule, rule.endpoint, sorted(rule.methods))
    # requests without a deviceId are attributed to this machine
    app.logger.info("Local device id: %s", get_device_id(app.config["DEVICE_ID_PATH"]))
    app.run(debug=app.config["DEBUG"], threaded=True)
