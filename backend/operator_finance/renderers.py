import csv
import io

from rest_framework.renderers import BaseRenderer


class CSVRenderer(BaseRenderer):
    """
    ``text/csv`` renderer for the commission export.

    Successful exports bypass it with a ready-made HttpResponse. It only
    renders what DRF produces itself, such as permission or validation errors,
    as a one-column ``detail`` sheet.
    """

    media_type = "text/csv"
    format = "csv"
    charset = "utf-8"
    render_style = "binary"

    def render(self, data, accepted_media_type=None, renderer_context=None):
        if data is None:
            return b""
        if isinstance(data, (bytes, bytearray)):
            return bytes(data)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(["detail"])
        if isinstance(data, dict):
            for key, value in data.items():
                writer.writerow([value if key == "detail" else f"{key}: {value}"])
        else:
            writer.writerow([data])
        return buffer.getvalue().encode(self.charset)
